import logging
import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from elab_constants import META, POOLED, SAMPLE_TYPES
from elab_fields import FieldSchema
from elab_logging import assert_error


class LimsError(Exception):
   def __init__(self, message, status_code=None):
      super().__init__(message)
      self.status_code = status_code


###
### SAMPLE MODEL
###

class Sample(object):

   def __init__(self, sample_id, name, sample_type, fields=None, children=None):
      self.sample_id   = sample_id
      self.name        = name
      self.sample_type = sample_type
      self.fields      = dict(fields or {})
      self.children    = list(children or [])

   def __repr__(self):
      return 'Sample(id={}, name={}, type={})'.format(self.sample_id, self.name, self.sample_type)

   @classmethod
   def from_json(cls, data, sample_type, children=None):
      fields = {m['key']: m.get('value') for m in data.get('meta') or []}
      return cls(data['sampleID'], data.get('name'), sample_type, fields, children)

   @property
   def is_pooled(self):
      return self.sample_type == POOLED['POOLED']

   @property
   def performed(self):
      return self.fields.get(META['PERFORMED'])

   @property
   def num_attempts(self):
      # Field is empty on samples that never went through qPCR
      value = self.fields.get(META['NUM_ATTEMPTS'])
      try:
         return int(float(value))
      except (TypeError, ValueError):
         return 0


###
### LIMS REQUEST METHODS
###

retry_status = [429, 500, 502, 503, 504]

def make_session(config):
   session = requests.Session()
   session.headers.update({'content-type': 'application/json', 'Authorization': config.auth_token})

   # Creating samples is not idempotent, only GET/PUT are retried
   retry = Retry(
      total=config.max_retries,
      backoff_factor=0.5,
      status_forcelist=retry_status,
      allowed_methods=['GET', 'PUT']
   )
   adapter = HTTPAdapter(max_retries=retry)
   session.mount('http://', adapter)
   session.mount('https://', adapter)
   return session


class LimsClient(object):

   def __init__(self, config, session=None):
      self.config  = config
      self.session = session if session is not None else make_session(config)

   def url(self, path):
      return '{}/{}'.format(self.config.api_url, path)

   def request(self, method, path, params=None, json_data=None):
      # methods: GET, POST, PUT
      url = self.url(path)
      try:
         r = self.session.request(method, url, params=params, json=json_data, timeout=self.config.timeout)
      except requests.RequestException as e:
         logging.error('No response received from eLab. Request details: METHOD={}, URL={}, PARAMS={}. Error dump: {}'.format(method, url, params, e))
         raise LimsError('No response received from eLab ({} {})'.format(method, url)) from e

      if not assert_error(r.status_code < 300,
                          'LIMS request returned non-successful response ({}). Request details: METHOD={}, URL={}, PARAMS={}, DATA={}, RESPONSE={}'.format(
                             r.status_code,
                             method,
                             url,
                             params,
                             json_data,
                             r.text
                          )):
         raise LimsError('eLab returned status {} ({} {})'.format(r.status_code, method, url), r.status_code)
      return r

   ##
   ## SAMPLE TYPES
   ##

   def fetch_sample_type_schema(self, sample_type):
      type_id = self.config.sample_type_id(sample_type)
      r = self.request('GET', 'sampleTypes/{}/meta'.format(type_id))
      schema = FieldSchema(sample_type, r.json()['data'])
      logging.info('[sampletype={}] got {} meta fields (id:{})'.format(sample_type, len(schema), type_id))
      return schema

   ##
   ## SAMPLES
   ##

   def fetch_children(self, sample_id):
      r = self.request('GET', 'samples/{}/children'.format(sample_id), params={'$expand': 'meta'})
      children = []
      for data in r.json()['data']:
         # Unknown sample types are kept (type=None) so the pool validation rejects them
         sample_type = self.config.sample_type_name(data.get('sampleTypeID'))
         children.append(Sample.from_json(data, sample_type))
      return children

   def fetch_sample_by_barcode(self, barcode):
      # Barcode is the sample name, returns every match in the Individual and Pooled sample types
      samples = []
      for sample_type in SAMPLE_TYPES:
         params = {'$expand': 'meta', 'sampleTypeID': self.config.sample_type_id(sample_type), 'name': barcode}
         r = self.request('GET', 'samples', params=params)
         for data in r.json()['data']:
            children = self.fetch_children(data['sampleID']) if sample_type == POOLED['POOLED'] else None
            samples.append(Sample.from_json(data, sample_type, children))
      logging.info('[sample={}] lookup returned {} sample(s)'.format(barcode, len(samples)))
      return samples

   def create_sample(self, name, sample_type=POOLED['INDIVIDUAL']):
      r = self.request('POST', 'samples', json_data={'sampleTypeID': self.config.sample_type_id(sample_type), 'name': name})
      sample_id = r.json()
      logging.info('[sample={}] created {} sample (id:{})'.format(name, sample_type, sample_id))
      return sample_id

   def update_sample_fields(self, sample_id, updates):
      payload = [u.as_json() for u in updates]
      self.request('PUT', 'samples/{}/metas'.format(sample_id), json_data=payload)
      logging.info('[sample_id={}] batch update of {} field(s)'.format(sample_id, len(payload)))

   def update_sample_field(self, sample_id, update):
      self.request('PUT', 'samples/{}/meta'.format(sample_id), json_data=update.as_json())
      logging.info('[sample_id={}] update field: {}'.format(sample_id, update.key))
