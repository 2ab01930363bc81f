# Requires Python version 3.9 or higher
import sys
if sys.version_info < (3,9):
   raise ImportError('Python version < 3.9 not supported')

import os
import asyncio
import argparse
import logging

from elab_constants import (CT_TARGETS, EXIT_FAILURE, EXIT_IDS_ASSIGNED, EXIT_SUCCESS, HAMILTON_LOG_HEADERS,
                            META, POOLED, PROTOCOL, QPCR_LOG_HEADERS, SAMPLE_TYPES)
from elab_config import load_config
from elab_client import LimsClient, LimsError
from elab_fields import UpdateBatch
from elab_logging import CriticalError, assert_critical, assert_warning, setup_logger
from lineage_tracker import LineageError, check_pooled_children, check_protocol, track_step
from log_files import LogFileError, read_log_text, read_rows, scan_qpcr_annotations, write_id_mapping
from result_classifier import Role, UnknownCallError, classify, increment_if_allowed, is_control, result_updates
from well_failures import ControlWellError, resolve_failures

__version__ = '1.0'


class SampleLookupError(LookupError):
   pass

class UnknownTargetError(ValueError):
   pass

class UnknownRowError(ValueError):
   pass

class DuplicateTargetError(ValueError):
   pass

# Errors that abort a single row, the run goes on with the next one
row_errors = (SampleLookupError, UnknownTargetError, DuplicateTargetError, UnknownRowError, UnknownCallError, LineageError, LimsError)


###
### RUN OUTCOME
###

class RunOutcome(object):

   def __init__(self, logfile=None):
      self.logfile    = logfile
      self.records    = 0
      self.failures   = []
      self.id_mapping = {}
      self.rewritten  = False

   def fail(self, barcode, reason):
      self.failures.append((barcode, reason))

   @property
   def ok(self):
      return len(self.failures) == 0

   @property
   def failed_barcodes(self):
      barcodes = []
      for barcode, _ in self.failures:
         if barcode not in barcodes:
            barcodes.append(barcode)
      return barcodes

   def mapping(self):
      # (barcode, sample id) pairs in file order
      return [self.id_mapping[i] for i in sorted(self.id_mapping)]

   def exit_code(self):
      if self.failures:
         return EXIT_FAILURE
      if self.rewritten:
         return EXIT_IDS_ASSIGNED
      return EXIT_SUCCESS


###
### ROW DISPATCHER
###

class RowDispatcher(object):
   """Sends every row of a liquid handler or QuantStudio log to its handler.

   Rows are read in file order. Liquid handler and Well Call rows are scheduled
   as tasks and awaited at the end of the file. CT rows are accumulated per
   sample and the combined update is awaited before the next row is read, so
   the three CT values of a sample are written together.
   """

   def __init__(self, client, schemas, failed_wells=None, qpcr_user=None, qpcr_serial_num=None, assign_ids=False):
      self.client          = client
      self.schemas         = schemas
      self.failed_wells    = failed_wells or {}
      self.qpcr_user       = qpcr_user
      self.qpcr_serial_num = qpcr_serial_num
      self.assign_ids      = assign_ids
      self.pending_ct      = {}
      self.outcome         = RunOutcome()
      self.tasks           = []

   def select_handler(self, row):
      if HAMILTON_LOG_HEADERS['PROTOCOL'] in row:
         return self.assign_sample_id if self.assign_ids else self.track_lineage
      if QPCR_LOG_HEADERS['CQ'] in row:
         return self.accumulate_ct
      if QPCR_LOG_HEADERS['CALL'] in row:
         return self.update_test_result
      return None

   @staticmethod
   def row_barcode(row):
      if HAMILTON_LOG_HEADERS['SAMPLE_TUBE_BC'] in row:
         return row[HAMILTON_LOG_HEADERS['SAMPLE_TUBE_BC']]
      return row.get(QPCR_LOG_HEADERS['SAMPLE'])

   async def process(self, rows):
      try:
         for index, row in enumerate(rows, 1):
            self.outcome.records += 1
            handler = self.select_handler(row)
            if handler is None:
               self.record_failure(self.row_barcode(row), index, UnknownRowError(
                  'Row does not match a liquid handler or QuantStudio layout (columns: {})'.format(','.join(row))))
               continue

            if handler == self.accumulate_ct:
               await self.guard(handler, row, index)
            else:
               self.tasks.append(asyncio.create_task(self.guard(handler, row, index)))
               # Let the new task reach its first request before parsing on
               await asyncio.sleep(0)
      except LogFileError as e:
         logging.error('{}. REMAINING ROWS NOT PROCESSED.'.format(e))
         self.outcome.fail(None, str(e))

      # Rows already scheduled are settled even when reading stopped early
      if self.tasks:
         await asyncio.gather(*self.tasks)
         self.tasks = []

      self.check_pending_ct()
      logging.info('Parsed {} records'.format(self.outcome.records))
      return self.outcome

   async def guard(self, handler, row, index):
      barcode = self.row_barcode(row)
      try:
         await handler(row, index)
      except row_errors as e:
         self.record_failure(barcode, index, e)
      except Exception as e:
         logging.exception('[row={}][sample={}] unexpected error, NOT PROCESSED.'.format(index, barcode))
         self.outcome.fail(barcode, 'Unexpected error: {}'.format(e))

   def record_failure(self, barcode, index, error):
      logging.error('[row={}][sample={}] {}, NOT PROCESSED.'.format(index, barcode, error))
      self.outcome.fail(barcode, str(error))

   def record_bad_row(self, fields):
      self.outcome.records += 1
      self.outcome.fail(None, 'Malformed row: {}'.format(','.join(fields)))

   ##
   ## LIMS ACCESS
   ##

   async def call(self, method, *args):
      # Blocking client calls run in a worker thread
      return await asyncio.to_thread(method, *args)

   async def resolve_sample(self, barcode):
      if not barcode:
         raise SampleLookupError('Missing sample barcode')
      samples = await self.call(self.client.fetch_sample_by_barcode, barcode)
      if len(samples) == 0:
         raise SampleLookupError('Sample for barcode ID {} not found'.format(barcode))
      if len(samples) > 1:
         raise SampleLookupError('More than one sample found with name {}'.format(barcode))
      return samples[0]

   def pool_members(self, sample):
      # Children are validated before anything is written for the row
      if not sample.is_pooled:
         return [(sample, Role.INDIVIDUAL)]
      return [(sample, Role.POOLED_PARENT)] + [(c, Role.POOLED_CHILD) for c in check_pooled_children(sample)]

   async def write_updates(self, index, batches):
      for sample, batch in batches:
         if batch.missing:
            self.outcome.fail(sample.name, 'Fields not found in {} sample type: {}'.format(batch.schema.sample_type, ','.join(batch.missing)))
         if not assert_warning(len(batch) > 0, '[row={}][sample={}] no fields to update'.format(index, sample.name)):
            continue
         if len(batch) == 1:
            await self.call(self.client.update_sample_field, sample.sample_id, batch.updates[0])
         else:
            await self.call(self.client.update_sample_fields, sample.sample_id, batch.updates)
         logging.info('[row={}][sample={}] batch update: {} (id:{})'.format(index, sample.name, ', '.join(batch.keys()), sample.sample_id))

   ##
   ## LIQUID HANDLER ROWS
   ##

   async def track_lineage(self, row, index):
      barcode  = row.get(HAMILTON_LOG_HEADERS['SAMPLE_TUBE_BC'])
      protocol = row.get(HAMILTON_LOG_HEADERS['PROTOCOL'])
      check_protocol(protocol)

      sample = await self.resolve_sample(barcode)
      step = (protocol,
              row.get(HAMILTON_LOG_HEADERS['DEST_BC']),
              row.get(HAMILTON_LOG_HEADERS['DEST_WELL_NUM']),
              row.get(HAMILTON_LOG_HEADERS['USER']),
              row.get(HAMILTON_LOG_HEADERS['SERIAL_NUM']),
              row.get(HAMILTON_LOG_HEADERS['REAGENT_NAMES']),
              row.get(HAMILTON_LOG_HEADERS['REAGENT_NUMS']))

      batches = [(sample, track_step(self.schemas[sample.sample_type], *step, label=sample.name))]
      if protocol == PROTOCOL['QPCR_PREP'] and sample.is_pooled:
         for child in check_pooled_children(sample):
            batches.append((child, track_step(self.schemas[POOLED['INDIVIDUAL']], *step, label=child.name)))

      await self.write_updates(index, batches)

   async def assign_sample_id(self, row, index):
      barcode = row.get(HAMILTON_LOG_HEADERS['SAMPLE_TUBE_BC'])
      if not barcode:
         raise SampleLookupError('Missing sample barcode')

      samples = await self.call(self.client.fetch_sample_by_barcode, barcode)
      if len(samples) > 1:
         raise SampleLookupError('More than one sample found with name {}'.format(barcode))

      if samples:
         sample_id = samples[0].sample_id
         logging.info('[row={}][sample={}] already registered (id:{})'.format(index, barcode, sample_id))
      else:
         sample_id = await self.call(self.client.create_sample, barcode)
      self.outcome.id_mapping[index] = (barcode, sample_id)

   ##
   ## QUANTSTUDIO ROWS
   ##

   async def update_test_result(self, row, index):
      barcode = row.get(QPCR_LOG_HEADERS['SAMPLE'])
      if is_control(barcode):
         logging.info('[row={}][sample={}] control well, skipped'.format(index, barcode))
         return

      sample = await self.resolve_sample(barcode)
      well = row.get(QPCR_LOG_HEADERS['WELL'])
      call = row.get(QPCR_LOG_HEADERS['CALL'])

      batches = []
      for member, role in self.pool_members(sample):
         attempts = increment_if_allowed(member.num_attempts)
         classification = classify(well, call, self.failed_wells, role, attempts)
         logging.info('[row={}][sample={}] well={} call={} role={} attempts={} -> result="{}" status="{}"'.format(
            index, member.name, well, call, role.value, attempts, classification.result, classification.status))
         schema = self.schemas[member.sample_type]
         batches.append((member, result_updates(schema, member.name, classification, attempts, self.qpcr_user, self.qpcr_serial_num)))

      await self.write_updates(index, batches)

   async def accumulate_ct(self, row, index):
      barcode = row.get(QPCR_LOG_HEADERS['SAMPLE'])
      if is_control(barcode):
         return

      target = str(row.get(QPCR_LOG_HEADERS['TARGET']) or '').strip().upper()
      if target not in CT_TARGETS:
         raise UnknownTargetError('Target "{}" is not one of: {}'.format(target, ','.join(CT_TARGETS)))

      # target -> Cq, the first reading of a target is kept
      readings = self.pending_ct.setdefault(barcode, {})
      if target in readings:
         raise DuplicateTargetError('Target {} already read for this sample (Cq={})'.format(target, readings[target]))
      readings[target] = row.get(QPCR_LOG_HEADERS['CQ'])
      if set(readings) != set(CT_TARGETS):
         return

      del self.pending_ct[barcode]
      await self.flush_ct(barcode, readings, index)

   async def flush_ct(self, barcode, readings, index):
      sample = await self.resolve_sample(barcode)

      batches = []
      for member, _ in self.pool_members(sample):
         batch = UpdateBatch(self.schemas[member.sample_type], member.name)
         for target in CT_TARGETS:
            batch.add(META[target], readings[target])
         batches.append((member, batch))

      await self.write_updates(index, batches)

   def check_pending_ct(self):
      for barcode, readings in self.pending_ct.items():
         logging.error('[sample={}] only {} of {} CT values found in log file, NOT PROCESSED.'.format(
            barcode, len(readings), len(CT_TARGETS)))
         self.outcome.fail(barcode, 'Incomplete CT values: {}'.format(','.join(readings)))
      self.pending_ct = {}


###
### LOG FILE PROCESSING
###

def load_schemas(client):
   schemas = {}
   for sample_type in SAMPLE_TYPES:
      try:
         schemas[sample_type] = client.fetch_sample_type_schema(sample_type)
      except LimsError as e:
         assert_critical(False, 'Error occurred when getting {} sample type ({}). NO SAMPLE WAS PROCESSED.'.format(sample_type, e))
   return schemas


def process_log_file(logfile, client, assign_ids=False):
   schemas = load_schemas(client)

   try:
      data = read_log_text(logfile)
   except (OSError, UnicodeDecodeError) as e:
      assert_critical(False, 'Error occurred when reading log file ({}). NO SAMPLE IN LOGFILE:{} WAS PROCESSED.'.format(e, logfile))

   # Well Call exports: control failures and run info come from the annotations
   annotations = scan_qpcr_annotations(data)
   failed_wells = {}
   if annotations.well_call:
      if annotations.failed_controls:
         logging.info('[file={}] failed controls {}'.format(logfile, ','.join(annotations.failed_controls)))
         try:
            failed_wells = resolve_failures(annotations.failed_controls)
         except ControlWellError as e:
            assert_critical(False, 'Error occurred when parsing control fails ({}). NO SAMPLE IN LOGFILE:{} WAS PROCESSED.'.format(e, logfile))
      assert_critical(annotations.user, 'Error occurred when parsing user initials. NO SAMPLE IN LOGFILE:{} WAS PROCESSED.'.format(logfile))
      assert_critical(annotations.serial_num, 'Error occurred when parsing instrument serial number. NO SAMPLE IN LOGFILE:{} WAS PROCESSED.'.format(logfile))

   dispatcher = RowDispatcher(client, schemas, failed_wells, annotations.user, annotations.serial_num, assign_ids)
   outcome = asyncio.run(dispatcher.process(read_rows(logfile, on_bad_row=dispatcher.record_bad_row)))
   outcome.logfile = logfile

   mapping = outcome.mapping()
   if assign_ids and mapping:
      write_id_mapping(logfile, mapping)
      outcome.rewritten = True

   return outcome


def log_outcome(outcome):
   if outcome.ok:
      logging.info('[file={}] SUCCESS log file processing ({} records)'.format(outcome.logfile, outcome.records))
      return
   logging.error('[file={}] log file processed with {} error(s), samples to reprocess: {}'.format(
      outcome.logfile, len(outcome.failures), ','.join(str(b) for b in outcome.failed_barcodes)))


###
### ARGUMENTS
###

def getOptions(args=sys.argv[1:]):
   parser = argparse.ArgumentParser('elab_sync')
   parser.add_argument('file', help='Liquid handler log or QuantStudio export (csv) to sync with eLab')
   parser.add_argument('-l', '--logpath', help='Folder to store logs', default='logs')
   parser.add_argument('--assign-ids', help='Register the sample barcodes of a liquid handler log and rewrite it with their eLab IDs', action='store_true')
   options = parser.parse_args(args)
   return options


###
### MAIN SCRIPT
###

def main(args=None):
   options = getOptions(sys.argv[1:] if args is None else args)
   logpath = setup_logger(options.logpath)
   logfile = options.file

   logging.info('[file={}] BEGIN log file processing (version {})'.format(logfile, __version__))
   try:
      assert_critical(os.path.isfile(logfile), 'Log file not found: {}'.format(logfile))
      config  = load_config()
      outcome = process_log_file(logfile, LimsClient(config), assign_ids=options.assign_ids)
   except CriticalError:
      logging.info('[file={}] ABORT log file processing'.format(logfile))
      print('Critical error, check logfile for details: {}'.format(logpath))
      return EXIT_FAILURE
   except Exception:
      logging.exception('[file={}] ABORT log file processing, unexpected error'.format(logfile))
      print('Execution exception, check logfile for details: {}'.format(logpath))
      return EXIT_FAILURE

   log_outcome(outcome)
   code = outcome.exit_code()
   logging.info('Process exit with code:{}'.format(code))
   return code


if __name__ == '__main__':
   code = main()
   logging.shutdown()
   sys.exit(code)
