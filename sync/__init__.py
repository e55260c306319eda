"""
Magento synchronization pipeline.

Modules:
    soap: Request envelopes and the shared response decoder
    client: Remote record fetcher (one SOAP call per method)
    session: Session token handle for one batch pass
    normalizers: Raw record -> typed record field tables
    store: Idempotent upserts keyed by remote identifiers
    driver: Bounded-concurrency batch driver
    jobs: Job catalogue (enumerate / fetch / normalize / persist per entity)
    runner: Job orchestration and run tracking
    scheduler: Periodic sync jobs

Usage:
    async with MagentoClient.from_settings() as client:
        runner = SyncRunner(client, SyncStore(async_session_maker), settings)
        result = await runner.run_job(JobName.ORDER_DETAILS)
"""
