"""Single-table DynamoDB access for UroCareerz.

- boto3 client/resource configuration
- retry/backoff with error mapping to the DdbError hierarchy
- encrypted pagination cursors
- conditional writes and transactions used for uniqueness locks
"""
