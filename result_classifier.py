from enum import Enum
from collections import namedtuple

from elab_constants import CONTROL_PREFIXES, MAX_ATTEMPTS, META, POOLED, STATUS_VAL, TEST_RESULT
from elab_fields import UpdateBatch
from well_failures import normalize_well


class UnknownCallError(ValueError):
   pass


class Role(Enum):
   INDIVIDUAL    = 'Individual'
   POOLED_PARENT = 'Pooled parent'
   POOLED_CHILD  = 'Pooled child'


# performed is None unless the sample must leave its pool
Classification = namedtuple('Classification', ['result', 'status', 'performed'])


def is_control(sample_name):
   return str(sample_name).strip().startswith(CONTROL_PREFIXES)


###
### ATTEMPTS
###

def increment_if_allowed(attempts):
   if attempts < MAX_ATTEMPTS:
      return attempts + 1
   return attempts


###
### CLASSIFICATION
###

def call_result(call):
   key = str(call).strip().upper()
   if key not in TEST_RESULT:
      raise UnknownCallError('"{}" is not a recognized call, must be one of: {}'.format(call, ','.join(TEST_RESULT)))
   return key, TEST_RESULT[key]


def classify(well, call, failed_wells, role, attempts):
   # attempts: value after this run has been counted
   well = normalize_well(well)

   if well in failed_wells:
      if attempts < MAX_ATTEMPTS:
         # Sample goes back to re-extraction or re-qPCR
         return Classification(TEST_RESULT['WARNING'], failed_wells[well], None)
      status = STATUS_VAL['QPCR_COMPLETE'] if role is Role.POOLED_PARENT else STATUS_VAL['QPCR_DONE']
      return Classification(TEST_RESULT['INVALID'], status, None)

   key, result = call_result(call)
   if key == 'POSITIVE' and role is not Role.INDIVIDUAL:
      result = POOLED['POSITIVE']

   if role is Role.POOLED_PARENT:
      return Classification(result, STATUS_VAL['QPCR_COMPLETE'], None)
   if role is Role.POOLED_CHILD and key in ('INVALID', 'POSITIVE'):
      # Needs individual follow-up, detach from the pool
      return Classification(result, STATUS_VAL['QPCR_COMPLETE'], POOLED['INDIVIDUAL'])
   return Classification(result, STATUS_VAL['QPCR_DONE'], None)


def result_updates(schema, label, classification, attempts, user, serial_num):
   batch = UpdateBatch(schema, label)
   batch.add(META['QPCR_TECH'], user)
   batch.add(META['QPCR_SN'], serial_num)
   batch.add(META['NUM_ATTEMPTS'], attempts)
   batch.add(META['RESULT'], classification.result)
   batch.add(META['STATUS'], classification.status)
   if classification.performed:
      batch.add(META['PERFORMED'], classification.performed)
   return batch
