"""
DynamoDB utility functions: reads, conditional writes and atomic batches.

Conditional writes are how the core gets per-record linearizability: a
write carries the attribute values it read (normally the gig ``version``)
and fails with ConcurrentModificationError if someone else got there first.
"""
import functools
from typing import List, Dict, Any, Optional

import boto3
from boto3.dynamodb.conditions import Key, Attr
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .config import config
from .errors import ConcurrentModificationError
from .logging import logger

# DynamoDB TransactWriteItems limit
TRANSACT_MAX_ITEMS = 100

_CONFLICT_REASONS = ('ConditionalCheckFailed', 'TransactionConflict')

_serializer = TypeSerializer()

# Initialize AWS clients lazily
_dynamodb_resource = None
_dynamodb_client = None


def get_dynamodb():
    """Get or create the DynamoDB resource."""
    global _dynamodb_resource
    if _dynamodb_resource is None:
        _dynamodb_resource = boto3.resource('dynamodb', region_name=config.AWS_REGION)
    return _dynamodb_resource


def get_client():
    """Get or create the low-level DynamoDB client (used for transactions)."""
    global _dynamodb_client
    if _dynamodb_client is None:
        _dynamodb_client = boto3.client('dynamodb', region_name=config.AWS_REGION)
    return _dynamodb_client


def serialize(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


# =============================================================================
# Reads
# =============================================================================

def get_item(table_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Get a single item with a strongly consistent read."""
    try:
        table = get_dynamodb().Table(table_name)
        response = table.get_item(Key=key, ConsistentRead=True)
        return response.get('Item')
    except ClientError as e:
        logger.error(f"Error getting item from {table_name}: {e}")
        raise


def query_by_field(
    table_name: str,
    index_name: str,
    field: str,
    value: Any
) -> List[Dict[str, Any]]:
    """
    Query a GSI for every item whose ``field`` equals ``value``.
    Follows LastEvaluatedKey until the result set is exhausted.
    """
    table = get_dynamodb().Table(table_name)
    params = {
        'IndexName': index_name,
        'KeyConditionExpression': Key(field).eq(value)
    }
    items = []
    try:
        while True:
            response = table.query(**params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            params['ExclusiveStartKey'] = last_key
    except ClientError as e:
        logger.error(f"Error querying {table_name}/{index_name}: {e}")
        raise


def scan_contains(table_name: str, field: str, value: Any) -> List[Dict[str, Any]]:
    """Scan for items whose list attribute ``field`` contains ``value``."""
    table = get_dynamodb().Table(table_name)
    params = {'FilterExpression': Attr(field).contains(value)}
    items = []
    try:
        while True:
            response = table.scan(**params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            params['ExclusiveStartKey'] = last_key
    except ClientError as e:
        logger.error(f"Error scanning {table_name}: {e}")
        raise


# =============================================================================
# Write operations
# =============================================================================

def put_op(
    table_name: str,
    item: Dict[str, Any],
    expected: Optional[Dict[str, Any]] = None,
    must_not_exist: Optional[str] = None
) -> Dict[str, Any]:
    """
    Describe a put. ``expected`` maps attribute names to the values they
    must currently hold; ``must_not_exist`` names a key attribute that must
    be absent (i.e. the item is new).
    """
    return {
        'type': 'put',
        'table': table_name,
        'item': item,
        'expected': expected or {},
        'must_not_exist': must_not_exist
    }


def update_op(
    table_name: str,
    key: Dict[str, Any],
    updates: Dict[str, Any],
    expected: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Describe a SET update of top-level attributes."""
    return {
        'type': 'update',
        'table': table_name,
        'key': key,
        'updates': updates,
        'expected': expected or {}
    }


def delete_op(table_name: str, key: Dict[str, Any]) -> Dict[str, Any]:
    """Describe a delete."""
    return {'type': 'delete', 'table': table_name, 'key': key}


def _condition(expected: Dict[str, Any], must_not_exist: Optional[str]):
    """Build ConditionExpression parts from an expected-values map."""
    parts, names, values = [], {}, {}
    for i, (attr, value) in enumerate(expected.items()):
        names[f'#c{i}'] = attr
        if value is None:
            parts.append(f'attribute_not_exists(#c{i})')
        else:
            values[f':c{i}'] = value
            parts.append(f'#c{i} = :c{i}')
    if must_not_exist:
        names['#nx'] = must_not_exist
        parts.append('attribute_not_exists(#nx)')
    return ' AND '.join(parts), names, values


def _to_transact_item(op: Dict[str, Any]) -> Dict[str, Any]:
    """Translate an operation description into a TransactWriteItems entry."""
    if op['type'] == 'delete':
        return {'Delete': {'TableName': op['table'], 'Key': serialize(op['key'])}}

    if op['type'] == 'put':
        request = {'TableName': op['table'], 'Item': serialize(op['item'])}
        condition, names, values = _condition(op['expected'], op['must_not_exist'])
        kind = 'Put'
    else:
        names, values, assignments = {}, {}, []
        for i, (attr, value) in enumerate(op['updates'].items()):
            names[f'#u{i}'] = attr
            values[f':u{i}'] = value
            assignments.append(f'#u{i} = :u{i}')
        condition, cond_names, cond_values = _condition(op['expected'], None)
        names.update(cond_names)
        values.update(cond_values)
        request = {
            'TableName': op['table'],
            'Key': serialize(op['key']),
            'UpdateExpression': 'SET ' + ', '.join(assignments)
        }
        kind = 'Update'

    if condition:
        request['ConditionExpression'] = condition
    if names:
        request['ExpressionAttributeNames'] = names
    if values:
        request['ExpressionAttributeValues'] = serialize(values)
    return {kind: request}


def transact_write(operations: List[Dict[str, Any]]) -> None:
    """
    Apply operations as one all-or-nothing transaction.

    Raises:
        ConcurrentModificationError: a condition failed or another
            transaction touched the same items.
        ValueError: more operations than a single transaction accepts.
    """
    if not operations:
        return
    if len(operations) > TRANSACT_MAX_ITEMS:
        raise ValueError(f"Transaction too large: {len(operations)} > {TRANSACT_MAX_ITEMS}")

    try:
        get_client().transact_write_items(
            TransactItems=[_to_transact_item(op) for op in operations]
        )
    except ClientError as e:
        error_code = e.response['Error']['Code']
        if error_code == 'TransactionCanceledException':
            # Cancellation reasons correspond to the TransactItems list order
            reasons = [r.get('Code') for r in e.response.get('CancellationReasons', [])]
            if any(r in _CONFLICT_REASONS for r in reasons):
                logger.warning(f"Transaction cancelled by conflict: {reasons}")
                raise ConcurrentModificationError() from e
        logger.error(f"Transaction error: {e}")
        raise


def put_item(
    table_name: str,
    item: Dict[str, Any],
    expected: Optional[Dict[str, Any]] = None,
    must_not_exist: Optional[str] = None
) -> None:
    """Put a single item, optionally conditioned."""
    request = _to_transact_item(put_op(table_name, item, expected, must_not_exist))['Put']
    try:
        get_client().put_item(**request)
    except ClientError as e:
        if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
            raise ConcurrentModificationError() from e
        logger.error(f"Error putting item in {table_name}: {e}")
        raise


def update_item(
    table_name: str,
    key: Dict[str, Any],
    updates: Dict[str, Any],
    expected: Optional[Dict[str, Any]] = None
) -> None:
    """SET top-level attributes of a single item, optionally conditioned."""
    request = _to_transact_item(update_op(table_name, key, updates, expected))['Update']
    try:
        get_client().update_item(**request)
    except ClientError as e:
        if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
            raise ConcurrentModificationError() from e
        logger.error(f"Error updating item in {table_name}: {e}")
        raise


def retry_on_conflict(func):
    """
    Re-run a read-modify-write operation when its conditional write loses.
    Gives up after config.MAX_WRITE_RETRIES attempts and re-raises.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        attempts = max(config.MAX_WRITE_RETRIES, 1)
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except ConcurrentModificationError:
                if attempt == attempts:
                    logger.error(f"{func.__name__}: giving up after {attempts} conflicting attempts")
                    raise
                logger.warning(f"{func.__name__}: concurrent modification, retrying ({attempt}/{attempts})")
    return wrapper
