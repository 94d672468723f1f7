"""
The MODEL layer contains pure data structures and geometry.
It has NO knowledge of Qt signals or of the event flows.
It deals with Geometry, Entities, and I/O.
"""
