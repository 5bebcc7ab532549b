"""Audio input decoding"""
