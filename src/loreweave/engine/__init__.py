"""Turn pipeline engine.

Leaves first: entry, relator and matcher model the entries; association,
rules and selection run the phases over a TurnContext; sorting, packing and
output turn the winners into text.
"""
