"""Fetching, parsing and transforming OTC market company pages, with health tracking."""