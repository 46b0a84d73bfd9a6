"""Language model providers"""
