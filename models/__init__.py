"""Model routing and capability metadata"""
