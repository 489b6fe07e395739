"""Run a bank-to-book reconciliation from the command line.

Example:
    python reconcile.py --bank data/bank.csv --book data/ledger.csv --output output
"""

from cashrecon.reconcile import main

if __name__ == '__main__':
    main()
