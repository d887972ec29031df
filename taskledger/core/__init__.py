"""Core domain: entities, exceptions and port interfaces"""
