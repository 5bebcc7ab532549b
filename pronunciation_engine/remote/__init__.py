"""Remote pronunciation assessment client"""
