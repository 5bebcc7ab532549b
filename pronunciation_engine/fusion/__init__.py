"""Score fusion and grading"""
