"""Outbound call providers"""
