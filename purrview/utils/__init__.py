"""Configuration and logging helpers"""
