"""
Analytics: market enrichment (prices, formatting, histories) and
relationship classification over price histories.
"""
