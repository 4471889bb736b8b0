"""HTTP surface of the translation proxy"""
