"""
Notifications feature package.

Queue model, retry policy, enqueue API, delivery processor and the
recurring delivery job.
"""
