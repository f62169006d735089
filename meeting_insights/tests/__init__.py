"""Test suite for the Meeting Insights backend."""
