"""Collaborators the cart talks to: storage, identity, system config, delivery fees."""
