"""Filter-graph builders and engine process helpers"""
