"""
Queue subsystem.

Components:
- task_models.py: TaskRecord, TaskHandle, method resolution
- queue.py: one named queue (push, push_unique, pop_tasks, cancel)
- flush.py: flush state machine (Flush, Batch)
- queue_set.py: ordered queues of one run-loop instance
"""
