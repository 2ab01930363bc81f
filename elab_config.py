import os
from collections import namedtuple

from elab_constants import POOLED
from elab_logging import assert_critical

default_api_url     = 'https://bu-acc.elabjournal.com/api/v1'
default_timeout     = 30
default_max_retries = 5


class Config(namedtuple('Config', ['api_url', 'auth_token', 'individual_type_id', 'pooled_type_id', 'timeout', 'max_retries'])):
   __slots__ = ()

   def sample_type_id(self, sample_type):
      if sample_type == POOLED['POOLED']:
         return self.pooled_type_id
      return self.individual_type_id

   def sample_type_name(self, type_id):
      # None for sample types this sync does not handle
      if type_id == self.individual_type_id:
         return POOLED['INDIVIDUAL']
      if type_id == self.pooled_type_id:
         return POOLED['POOLED']
      return None


def _int_variable(environ, name, default=None):
   value = environ.get(name)
   if value is None or value.strip() == '':
      assert_critical(default is not None, 'Environment variable {} is not defined'.format(name))
      return default
   try:
      return int(value)
   except ValueError:
      assert_critical(False, 'Environment variable {} must be an integer, got "{}"'.format(name, value))


def load_config(environ=os.environ):
   token = environ.get('ELAB_AUTH_TOKEN', '').strip()
   assert_critical(token, 'No authentication token found, define ELAB_AUTH_TOKEN before running this script.')

   return Config(
      api_url            = environ.get('ELAB_API_URL', default_api_url).rstrip('/'),
      auth_token         = token,
      individual_type_id = _int_variable(environ, 'ELAB_INDIVIDUAL_SAMPLE_TYPE_ID'),
      pooled_type_id     = _int_variable(environ, 'ELAB_POOLED_SAMPLE_TYPE_ID'),
      timeout            = _int_variable(environ, 'ELAB_TIMEOUT', default_timeout),
      max_retries        = _int_variable(environ, 'ELAB_MAX_RETRIES', default_max_retries)
   )
