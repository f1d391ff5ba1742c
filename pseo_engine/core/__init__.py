"""Entity and value types"""
