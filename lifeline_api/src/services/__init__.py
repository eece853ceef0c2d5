"""Dataset services: the fetch, normalize and cache flow per route family."""
