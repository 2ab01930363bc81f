from collections import namedtuple

from elab_logging import assert_error

SchemaEntry = namedtuple('SchemaEntry', ['key', 'data_type', 'meta_id'])


class FieldUpdate(namedtuple('FieldUpdate', ['key', 'value', 'data_type', 'meta_id'])):
   __slots__ = ()

   def as_json(self):
      return {
         'key': self.key,
         'value': self.value,
         'sampleDataType': self.data_type,
         'sampleTypeMetaID': self.meta_id
      }


###
### SAMPLE TYPE SCHEMA
###

class FieldSchema(object):
   # Meta fields of one sample type, indexed by key

   def __init__(self, sample_type, metas):
      self.sample_type = sample_type
      self._entries = {}
      for m in metas:
         self._entries[m['key']] = SchemaEntry(m['key'], m.get('sampleDataType'), m.get('sampleTypeMetaID'))

   def __contains__(self, key):
      return key in self._entries

   def __len__(self):
      return len(self._entries)

   def get(self, key):
      return self._entries.get(key)

   def update(self, key, value):
      entry = self._entries.get(key)
      if entry is None:
         return None
      return FieldUpdate(entry.key, value, entry.data_type, entry.meta_id)


###
### UPDATE BATCH
###

class UpdateBatch(object):
   """Field updates for a single sample, sent to eLab in one request.

   Keys that cannot be resolved against the sample type schema are logged,
   left out of the batch and kept in `missing` so the caller can flag the
   row as not correctly processed.
   """

   def __init__(self, schema, label):
      self.schema  = schema
      self.label   = label
      self.updates = []
      self.missing = []

   def __len__(self):
      return len(self.updates)

   def __iter__(self):
      return iter(self.updates)

   def add(self, key, value):
      update = self.schema.update(key, value)
      if not assert_error(update is not None, '[sample={}] field "{}" not found in {} sample type, NOT CORRECTLY PROCESSED.'.format(self.label, key, self.schema.sample_type)):
         self.missing.append(key)
         return None
      self.updates.append(update)
      return update

   def keys(self):
      return [u.key for u in self.updates]

   def values(self):
      return {u.key: u.value for u in self.updates}

   def as_json(self):
      return [u.as_json() for u in self.updates]
