"""quotewatch: multi-provider stock quote board."""
