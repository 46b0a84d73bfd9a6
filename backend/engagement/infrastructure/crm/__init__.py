"""CRM providers"""
