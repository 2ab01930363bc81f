import io, re
import logging
from collections import namedtuple
import pandas as pd

from elab_constants import HAMILTON_LOG_HEADERS


###
### QUANTSTUDIO ANNOTATIONS
###

QpcrAnnotations = namedtuple('QpcrAnnotations', ['well_call', 'failed_controls', 'user', 'serial_num'])

def read_log_text(logfile):
   with open(logfile) as f_in:
      return f_in.read()

def is_well_call(data):
   return re.search(r'\[Well Call\]', data) is not None

def get_warning_wells(data):
   # Rows like "C1,NTC_1,...,WARNING", first field is the well position
   found = re.findall(r'^(?![ \t]*#)[ \t]*"?([^,"\r\n]+?)"?[ \t]*,.*,[ \t]*"?WARNING"?[ \t\r]*$', data, re.M)
   wells = []
   for well in found:
      if well not in wells:
         wells.append(well)
   return wells

def get_qpcr_user(data):
   m = re.search(r'^# User Name: (.*)$', data, re.M)
   return m.group(1).strip() if m else None

def get_qpcr_sn(data):
   m = re.search(r'^# Instrument Serial Number: (.*)$', data, re.M)
   return m.group(1).strip() if m else None

def scan_qpcr_annotations(data):
   if not is_well_call(data):
      return QpcrAnnotations(False, [], None, None)
   return QpcrAnnotations(True, get_warning_wells(data), get_qpcr_user(data), get_qpcr_sn(data))


###
### CSV ROWS
###

def table_lines(data, skip_lines=2):
   # Leading metadata lines, comments and [Section] markers are not part of the table
   lines = data.splitlines()[skip_lines:]
   return [line for line in lines
           if line.strip()
           and not line.lstrip().startswith('#')
           and not re.match(r'^\s*\[[^\]]*\]\s*$', line)]

class LogFileError(ValueError):
   pass


def read_rows(logfile, skip_lines=2, chunksize=500, on_bad_row=None):
   rows = table_lines(read_log_text(logfile), skip_lines)
   if not rows:
      logging.warning('[file={}] no table rows found'.format(logfile))
      return

   def bad_row(fields):
      # Row with more fields than the header, skipped
      logging.error('[file={}] malformed row skipped: {}'.format(logfile, ','.join(fields)))
      if on_bad_row is not None:
         on_bad_row(fields)
      return None

   sep = '\t' if '\t' in rows[0] else ','
   reader = pd.read_csv(io.StringIO('\n'.join(rows)), sep=sep, dtype=str, keep_default_na=False, skipinitialspace=True,
                        engine='python', on_bad_lines=bad_row, chunksize=chunksize)
   with reader:
      try:
         for chunk in reader:
            chunk.columns = [str(c).strip() for c in chunk.columns]
            for record in chunk.to_dict('records'):
               yield {k: v.strip() if isinstance(v, str) else v for k, v in record.items()}
      except pd.errors.ParserError as e:
         raise LogFileError('Error parsing log file {} ({})'.format(logfile, e)) from e


###
### ID ASSIGNMENT OUTPUT
###

def write_id_mapping(logfile, mapping):
   # Overwrites the source log: barcode -> eLab sample ID
   data = pd.DataFrame(mapping, columns=[HAMILTON_LOG_HEADERS['SAMPLE_TUBE_BC'], HAMILTON_LOG_HEADERS['ELAB_ID']])
   data.to_csv(logfile, index=False)
   logging.info('[file={}] rewrote log file with {} sample ID(s)'.format(logfile, data.shape[0]))
   return data
