"""
fleet_batch.services -- Dispatcher and run coordinator (the only I/O layer).
"""
