# Field keys, vocabularies and plate layout shared by the eLab sync scripts

###
### SAMPLE META FIELDS (keys as defined in the eLab sample types)
###

META = {
   'DEEPWELL_BC':         'Extraction Plate Barcode',
   'DEEPWELL_WELL_NUM':   'Extraction Plate Well Location',
   'RNA_PLATE_BC':        'RNA Elution Plate Barcode',
   'RNA_PLATE_WELL_NUM':  'RNA Elution Plate Well Location',
   'QPCR_PLATE_BC':       'qPCR Plate Barcode',
   'QPCR_PLATE_WELL_NUM': 'qPCR Plate Well Location',
   'STATUS':              'Sample Process Status',
   'RESULT':              'COVID-19 Test Result',
   'N1':                  'CT Value (N1)',
   'N2':                  'CT Value (N2)',
   'RP':                  'CT Value (RP)',
   'NUM_ATTEMPTS':        'Number of Attempts',
   'SAMPLE_PREP_TECH':    'Sample Aliquot User',
   'EXTRACTION_TECH':     'RNA Extraction User',
   'QPCR_PREP_TECH':      'qPCR Prep User',
   'QPCR_TECH':           'qPCR User',
   'SAMPLE_PREP_SN':      'Sample Aliquot Instrument SN',
   'EXTRACTION_SN':       'RNA Extraction Instrument SN',
   'QPCR_PREP_SN':        'qPCR Prep Instrument SN',
   'QPCR_SN':             'qPCR SN',
   'PERFORMED':           'Performed'
}

# Gene targets reported by the QuantStudio, one CT value each
CT_TARGETS = ('N1', 'N2', 'RP')


###
### STATUS / RESULT VOCABULARY
###

STATUS_VAL = {
   'SAMPLE_PREP_DONE': 'Sample Transferred to Extraction Plate',
   'RNA_DONE':         'RNA Extracted',
   'QPCR_PREP_DONE':   'qPCR Plate Prepared',
   'QPCR_DONE':        'Finished',
   'QPCR_COMPLETE':    'qPCR Completed',
   'RE_EXTRACT':       'Re-run RNA Extraction',
   'RE_QPCR':          'Re-run qPCR'
}

# key: "Call" column of the QuantStudio export (upper case)
# value: test result stored in eLab
TEST_RESULT = {
   'POSITIVE':     'Positive',
   'NEGATIVE':     'Negative',
   'INCONCLUSIVE': 'Inconclusive - recollect',
   'INVALID':      'Invalid - recollect',
   'WARNING':      'Control Failed'
}

# Pooled testing: sample type names, "Performed" values and relabeled result
POOLED = {
   'INDIVIDUAL': 'Individual',
   'POOLED':     'Pooled',
   'POSITIVE':   'Presumptive Positive'
}

SAMPLE_TYPES = (POOLED['INDIVIDUAL'], POOLED['POOLED'])

MAX_ATTEMPTS = 5


###
### LIQUID HANDLER (HAMILTON) LOGS
###

PROTOCOL = {
   'SAMPLE_ALIQUOT': 'SAMPLE_ALIQUOT',
   'RNA_EXTRACTION': 'RNA_EXTRACTION',
   'QPCR_PREP':      'QPCR_PREP'
}

# protocol -> (plate barcode field, well field, status value, technician field, instrument field)
LINEAGE_FIELDS = {
   PROTOCOL['SAMPLE_ALIQUOT']: (META['DEEPWELL_BC'],
                                META['DEEPWELL_WELL_NUM'],
                                STATUS_VAL['SAMPLE_PREP_DONE'],
                                META['SAMPLE_PREP_TECH'],
                                META['SAMPLE_PREP_SN']),
   PROTOCOL['RNA_EXTRACTION']: (META['RNA_PLATE_BC'],
                                META['RNA_PLATE_WELL_NUM'],
                                STATUS_VAL['RNA_DONE'],
                                META['EXTRACTION_TECH'],
                                META['EXTRACTION_SN']),
   PROTOCOL['QPCR_PREP']:      (META['QPCR_PLATE_BC'],
                                META['QPCR_PLATE_WELL_NUM'],
                                STATUS_VAL['QPCR_PREP_DONE'],
                                META['QPCR_PREP_TECH'],
                                META['QPCR_PREP_SN'])
}

HAMILTON_LOG_HEADERS = {
   'INDEX':          'Index',
   'PROTOCOL':       'Protocol',
   'SAMPLE_TUBE_BC': 'Sample Tube Barcode',
   'DEST_BC':        'Output Barcode',
   'DEST_WELL_NUM':  'Output Well Number',
   'REAGENT_NAMES':  'Reagent Names',
   'REAGENT_NUMS':   'Reagent Lot Numbers',
   'USER':           'UserName',
   'SERIAL_NUM':     'Machine SN',
   'ELAB_ID':        'eLab Sample ID'
}


###
### QUANTSTUDIO (qPCR) EXPORTS
###

QPCR_LOG_HEADERS = {
   'WELL':   'Well Position',
   'SAMPLE': 'Sample',
   'CALL':   'Call',
   'TARGET': 'Target',
   'CQ':     'Cq'
}

# Sample names of control wells start with one of these
CONTROL_PREFIXES = ('PCR_POS', 'NTC_', 'NEC_')

# First entry is the all-positive control, the rest are negative controls
CONTROL_WELLS = ('A1', 'C1', 'C2', 'D1', 'D2', 'E1', 'E2', 'F1', 'F2')
ALL_POSITIVE_CONTROL = CONTROL_WELLS[0]

PLATE384 = {'ROW': 16, 'COL': 24}
PLATE96  = {'ROW': 8,  'COL': 12}


###
### EXIT CODES
###

EXIT_SUCCESS      = 0
EXIT_FAILURE      = 8
EXIT_IDS_ASSIGNED = 9
