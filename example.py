"""Example usage of the jsondelta diff engine."""

import json

from jsondelta import (
    DiffEngine,
    DiffOptions,
    EngineConfig,
    JobQueue,
    analyze_document,
    validate_options,
)

# Previous release of an invoice
old_invoice = {
    "id": "INV-001",
    "total": 100.004,
    "status": "PAID",
    "updatedAt": "2025-02-02T11:00:00Z",  # Will be ignored
    "tags": ["b2b", "priority"],
    "lineItems": [
        {"sku": "WIDGET-001", "quantity": 5, "unitPrice": 10.00},
        {"sku": "GADGET-002", "quantity": 2, "unitPrice": 25.50},
        {"sku": "GIZMO-003", "quantity": 1, "unitPrice": 99.00},
    ]
}

# Current release: items reordered, one changed, one dropped, one new
new_invoice = {
    "id": "INV-001",
    "total": 100.0,  # Equal after rounding to 2 decimals
    "status": "paid",  # Equal after lowercasing
    "updatedAt": "2025-02-03T09:15:00Z",
    "tags": ["priority", "b2b"],  # Equal after sorting
    "lineItems": [
        {"sku": "GADGET-002", "quantity": 3, "unitPrice": 25.50},
        {"sku": "WIDGET-001", "quantity": 5, "unitPrice": 10.00},
        {"sku": "DOOHICKEY-004", "quantity": 1, "unitPrice": 4.25},
    ]
}

options = DiffOptions.from_dict({
    "arrayStrategy": "keyed",
    "arrayKeyPath": "sku",
    "ignoreRules": [
        {"id": "timestamps", "type": "glob", "pattern": "*updatedAt"},
    ],
    "transformRules": [
        {"id": "money", "type": "round", "targetPath": "total", "options": {"decimals": 2}},
        {"id": "status", "type": "lowercase", "targetPath": "status"},
        {"id": "tags", "type": "sortArray", "targetPath": "tags"},
    ],
})


def main():
    print("=" * 60)
    print("jsondelta - Example")
    print("=" * 60)

    for error in validate_options(options):
        print(f"[{error.severity.value}] {error.message}")

    print("\nSuggested array strategies:")
    for path, suggestion in analyze_document(old_invoice).items():
        key = f" by '{suggestion.key_path}'" if suggestion.key_path else ""
        print(f"  {path}: {suggestion.suggested.value}{key} ({suggestion.reason})")

    result = DiffEngine(options).compute(old_invoice, new_invoice)

    print(f"\nHas changes: {result.has_changes}")
    print(f"Nodes: {result.stats.nodes}, computed in {result.stats.compute_ms}ms")

    print("\nChanges:")
    for node in result.root.walk():
        if node.children:
            continue
        moved = f" (moved from {node.meta.moved_from})" if node.meta and node.meta.moved_from is not None else ""
        print(f"  [{node.kind.value}] {node.path}{moved}")

    print("\n" + "-" * 60)
    print("Full JSON Result:")
    print(json.dumps(result.to_dict(), indent=2))


def example_with_queue():
    """Run the same diff as a background job with progress events."""
    print("\n" + "=" * 60)
    print("Example with Job Queue")
    print("=" * 60)

    def on_progress(event):
        print(f"  {event.type.value}: {event.progress if event.progress is not None else ''}")

    with JobQueue(EngineConfig(use_isolated=False)) as queue:
        job_id = queue.submit(old_invoice, new_invoice, options, on_progress=on_progress)
        status = queue.wait(job_id, timeout=10)
        print(f"\nJob {job_id}: {status.status.value}")
        print(f"Queue: {queue.get_queue_stats().to_dict()}")


if __name__ == "__main__":
    main()
    example_with_queue()
