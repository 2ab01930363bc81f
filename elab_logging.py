import os
import datetime
import logging


###
### LOGGING
###

log_format = '[%(asctime)s][%(levelname)s]%(message)s'

def setup_logger(log_path, log_level=logging.INFO):
   # One log per day with everything, one with errors only
   today = datetime.date.today().strftime('%Y-%m-%d')
   os.makedirs(log_path, exist_ok=True)
   log_file   = os.path.join(log_path, 'combined-{}.log'.format(today))
   error_file = os.path.join(log_path, 'error-{}.log'.format(today))

   combined_handler = logging.FileHandler(log_file)
   combined_handler.setLevel(log_level)
   error_handler = logging.FileHandler(error_file)
   error_handler.setLevel(logging.ERROR)

   logging.basicConfig(level=log_level, format=log_format, handlers=[combined_handler, error_handler], force=True)

   return log_file


###
### ERROR CONTROL
###

class CriticalError(AssertionError):
   pass

def assert_critical(cond, msg):
   if not cond:
      logging.critical(msg)
      raise CriticalError(msg)
   return cond

def assert_error(cond, msg):
   if not cond:
      logging.error(msg)
   return cond

def assert_warning(cond, msg):
   if not cond:
      logging.warning(msg)
   return cond
