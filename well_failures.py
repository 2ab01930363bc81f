import re
import logging

from elab_constants import ALL_POSITIVE_CONTROL, CONTROL_WELLS, PLATE384, STATUS_VAL


class ControlWellError(ValueError):
   pass


###
### PLATE COORDINATES
###

def plate_rows(n_rows):
   return [chr(65+i) for i in range(n_rows)]

def plate_cols(n_cols):
   return list(range(1, n_cols+1))

def plate_wells(plate=PLATE384):
   return ['{}{}'.format(r, c) for r in plate_rows(plate['ROW']) for c in plate_cols(plate['COL'])]

def parse_well(well):
   # 'c02' -> ('C', 2)
   m = re.match(r'^\s*([A-Za-z])0*([0-9]+)\s*$', str(well))
   if m is None:
      raise ValueError('{} is not a plate coordinate'.format(well))
   return m.group(1).upper(), int(m.group(2))

def normalize_well(well):
   try:
      return '{}{}'.format(*parse_well(well))
   except ValueError:
      return str(well).strip().upper()


###
### CONTROL FAILURES
###

def resolve_failures(failed_controls):
   """Map every 384-well position guarded by a failed control to its status.

   A1 (all positive control) invalidates the whole plate, samples are sent back
   to qPCR. Each negative control guards the wells sharing its row and column
   parity, those samples are sent back to RNA extraction. A1 is applied first,
   the remaining controls overwrite in the order they were reported.
   """
   controls = []
   for well in failed_controls:
      well = normalize_well(well)
      if well not in CONTROL_WELLS:
         logging.error('{} is not a valid control well'.format(well))
         raise ControlWellError('{} is not a valid control well, must be one of: {}'.format(well, ','.join(CONTROL_WELLS)))
      if well not in controls:
         controls.append(well)
   controls.sort(key=lambda w: w != ALL_POSITIVE_CONTROL)

   rows = plate_rows(PLATE384['ROW'])
   cols = plate_cols(PLATE384['COL'])

   failed_wells = {}
   for control in controls:
      if control == ALL_POSITIVE_CONTROL:
         for well in plate_wells(PLATE384):
            failed_wells[well] = STATUS_VAL['RE_QPCR']
         continue

      row, col = parse_well(control)
      r_index = rows.index(row)
      c_index = col - 1
      for r in rows[r_index % 2::2]:
         for c in cols[c_index % 2::2]:
            failed_wells['{}{}'.format(r, c)] = STATUS_VAL['RE_EXTRACT']

   logging.info('Failed controls {} invalidate {} wells'.format(','.join(controls), len(failed_wells)))
   return failed_wells
