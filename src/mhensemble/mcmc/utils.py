def clean_config(run_config):
    """
    Cleans the run config and sets defaults.
    All config keys use lowercase with underscores.
    """
    run_config = dict(run_config)

    run_config.setdefault('iterations', 1000)
    run_config.setdefault('warm_up', 500)
    run_config.setdefault('n_chains', 4)
    run_config.setdefault('proposal', 'random_walk')
    run_config.setdefault('step_size', 1.0)
    run_config.setdefault('density_mode', 'log')
    run_config.setdefault('divergence_threshold', None)
    run_config.setdefault('rng_seed', 42)
    run_config.setdefault('max_workers', None)
    run_config.setdefault('rhat_threshold', 1.01)

    if run_config['proposal'] == 'circular':
        run_config.setdefault('low', 1)
        run_config.setdefault('high', 10)

    return run_config
