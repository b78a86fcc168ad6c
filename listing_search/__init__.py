# Structured listing search and relevance ranking
