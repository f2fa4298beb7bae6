"""
Search strategies:
  - cascade.py: direct → synonym → tag → popular fallback chain
  - taxonomy.py: tag-first search with the dead-tag negative cache
  - hybrid.py: direct + taxonomy + dimension picks, run concurrently
  - semantic.py: embedding matcher feeding the cascade's first tier
"""
