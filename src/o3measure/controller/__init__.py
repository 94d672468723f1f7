"""
The CONTROLLER layer sequences user input into geometry: point collection,
anchor layout, plane-constrained dragging and the placement flows.
It talks to the store, never to a renderer.
"""
