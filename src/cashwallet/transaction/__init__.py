"""
Transaction construction: address and wire encoding, signing, building and composing.
"""
