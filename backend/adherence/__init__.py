"""Adherence Calculation Engine: daily schedule adherence scoring for remote agents."""
