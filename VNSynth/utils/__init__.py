import logging
import time
from functools import wraps

log = logging.getLogger(__name__)


def timed(repititions: int = 1):
    """
    A decorator to log the average execution time of a function.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            execution_time = 0
            for _ in range(repititions):
                start_time = time.perf_counter()
                result = func(*args, **kwargs)
                end_time = time.perf_counter()
                execution_time += end_time - start_time
            log.info(
                "Function '%s' executed %d times averaging %.4f milliseconds.",
                func.__name__,
                repititions,
                (execution_time / repititions) * 1000,
            )
            return result

        return wrapper

    return decorator
