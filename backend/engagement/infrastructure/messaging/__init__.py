"""Verification email and SMS delivery"""
