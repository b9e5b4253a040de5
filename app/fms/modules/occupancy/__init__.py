"""
Occupancy module: occupy/vacate a storage unit and list the units you rent.
"""
