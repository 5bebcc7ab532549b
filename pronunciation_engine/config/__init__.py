"""Configuration loading and typed settings"""
