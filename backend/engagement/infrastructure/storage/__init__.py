"""Repository implementations"""
