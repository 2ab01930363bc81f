import re
import logging

from elab_constants import LINEAGE_FIELDS, META, POOLED, PROTOCOL
from elab_fields import UpdateBatch


class LineageError(Exception):
   pass

class UnknownProtocolError(LineageError):
   pass

class ReagentListError(LineageError):
   pass

class PooledChildError(LineageError):
   pass


###
### PROTOCOLS
###

def check_protocol(protocol):
   if not protocol or protocol not in LINEAGE_FIELDS:
      raise UnknownProtocolError('{} is not recognized as a supported process. Must be one of the {} values: {}'.format(
         protocol, len(PROTOCOL), ','.join(PROTOCOL)))
   return protocol


###
### REAGENTS
###

def parse_reagent_list(value):
   # "['lotA', 'lotB']" -> ['lotA', 'lotB']
   value = re.sub(r'[\'"]', '', value or '').strip()
   value = re.sub(r'^\[|\]$', '', value).strip()
   if not value:
      return []
   return [v.strip() for v in value.split(',')]


def reagent_updates(batch, reagent_names, reagent_lots):
   names = parse_reagent_list(reagent_names)
   lots  = parse_reagent_list(reagent_lots)
   if len(names) != len(lots):
      raise ReagentListError('Length of reagent names ({}) does not match length of reagent lot numbers ({})'.format(len(names), len(lots)))

   for name, lot in zip(names, lots):
      batch.add(name, lot)
   return batch


###
### LINEAGE
###

def track_step(schema, protocol, dest_bc, dest_well, user, serial_num, reagent_names, reagent_lots, label):
   check_protocol(protocol)
   plate_key, well_key, status, user_key, sn_key = LINEAGE_FIELDS[protocol]

   batch = UpdateBatch(schema, label)
   # Reagents first, a list mismatch must leave nothing behind
   reagent_updates(batch, reagent_names, reagent_lots)

   batch.add(plate_key, dest_bc)
   batch.add(well_key, dest_well)
   batch.add(META['STATUS'], status)
   batch.add(user_key, user)
   batch.add(sn_key, serial_num)
   return batch


def check_pooled_children(sample):
   if not sample.children:
      logging.warning('[sample={}] pooled sample has no children'.format(sample.name))

   for child in sample.children:
      if child.sample_type != POOLED['INDIVIDUAL']:
         raise PooledChildError('Child {} of pooled sample {} is not an {} sample (type: {})'.format(
            child.name, sample.name, POOLED['INDIVIDUAL'], child.sample_type))
      if child.performed != POOLED['POOLED']:
         raise PooledChildError('Child {} of pooled sample {} is not flagged {}={} (got: {})'.format(
            child.name, sample.name, META['PERFORMED'], POOLED['POOLED'], child.performed))
   return sample.children
