"""Metrics and error tracking"""
