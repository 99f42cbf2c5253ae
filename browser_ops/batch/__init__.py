from browser_ops.batch.service import BatchRunner, run_batch

__all__ = ['BatchRunner', 'run_batch']
