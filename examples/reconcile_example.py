"""Example usage of the record reconciliation system with CSV files."""

import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

from reconciler import (
    ConflictRules,
    MatchingMode,
    MatchOptions,
    MergeOptions,
    PatternRule,
    RecordReconciler,
    Table
)
from reconciler.config.models import records_to_dataframe


def create_customer_reconciler(add_source_column: bool = True) -> RecordReconciler:
    """
    Create a reconciler configured for customer lists.

    Customers are identified by postcode; within a postcode, names are
    compared fuzzily so typos still count as duplicates.
    """
    options = MatchOptions(
        case_sensitive=False,
        trim_whitespace=True,
        strip_non_alphanumeric=True,
        matching_mode=MatchingMode.FUZZY,
        fuzzy_threshold=0.8,
        primary_columns=['postcode'],
        secondary_columns=['name']
    )

    merge_options = MergeOptions(
        add_source_column=add_source_column,
        conflict_rules=ConflictRules(
            include_rules=[PatternRule(r'(?!updated_).*')],
            exclude_columns=['notes']
        )
    )

    return RecordReconciler(options=options, merge_options=merge_options)

def load_table(path: Path) -> Table:
    df = pd.read_csv(path, dtype=str).fillna('')
    return Table.from_dataframe(df, name=path.name)

def reconcile_csv_files(
    files: List[Path],
    key_columns: List[str],
    output_dir: Optional[Path] = None
) -> pd.DataFrame:
    """
    Deduplicate the first file, then merge all files on a key.

    Args:
        files: CSV files to reconcile
        key_columns: Columns identifying a customer across files
        output_dir: Optional directory for the report and merged output

    Returns:
        pd.DataFrame: Final merged data with conflicts resolved
    """
    try:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s'
        )

        reconciler = create_customer_reconciler()
        tables = [load_table(path) for path in files]

        report = reconciler.duplicate_report(tables[0])
        logging.info(f"Duplicate groups in {tables[0].name}: {report.total_groups}")

        analysis = reconciler.analyze_merge_keys(tables)
        for stats in analysis.common_columns:
            logging.info(
                f"{stats.column_name}: overlap {stats.overlap:.1%}, "
                f"uniqueness {stats.uniqueness:.2f}"
            )

        merge_result = reconciler.merge_files(tables, key_columns)
        final_rows = reconciler.apply_resolutions(merge_result, tables, key_columns)
        merged = records_to_dataframe(final_rows, merge_result.headers)

        if output_dir:
            output_dir.mkdir(parents=True, exist_ok=True)
            logging.info(f"Saving results to: {output_dir}")
            records_to_dataframe(report.rows, report.headers).to_csv(
                output_dir / 'duplicate_report.csv', index=False
            )
            merged.to_csv(output_dir / 'merged.csv', index=False)

        return merged

    except Exception as e:
        logging.error(f"An error occurred: {e}", exc_info=True)
        raise

if __name__ == "__main__":
    reconcile_csv_files(
        files=[Path('data/customers_crm.csv'), Path('data/customers_billing.csv')],
        key_columns=['customer_id'],
        output_dir=Path('data/output')
    )
