"""Infrastructure adapters: persistence, oracles and notifications"""
