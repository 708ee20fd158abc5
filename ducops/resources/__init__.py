#!/usr/bin/env python3

from typing import Optional

from ducops.resources.base import BaseResource


def _load_modules():
    """Loads all the modules in the current package."""
    import os
    import sys

    for module in sorted(os.listdir(os.path.dirname(__file__))):
        if module == '__init__.py' or module[-3:] != '.py':
            continue
        __import__(f'{sys.modules[__name__].__name__}.{module[:-3]}',
                   locals(), globals())
    del module


def resources() -> list[BaseResource.__class__]:
    """Gets a list of all the resources exposed by the API."""
    import sys
    import inspect

    # Cache the resource list.
    if not hasattr(resources, 'resource_list'):
        resources.resource_list = []
    else:
        return resources.resource_list

    # Go through the modules looking for the resources.
    for filename, file_obj in inspect.getmembers(sys.modules[__name__]):
        if inspect.ismodule(file_obj):
            for class_name, mod_obj in inspect.getmembers(file_obj):
                # Only concrete resources have an endpoint of their own.
                if (inspect.isclass(mod_obj) and
                        class_name.startswith('Resource') and
                        issubclass(mod_obj, BaseResource) and
                        mod_obj.endpoint is not None and
                        mod_obj not in resources.resource_list):
                    resources.resource_list.append(mod_obj)

    return resources.resource_list


def endpoints() -> list[str]:
    """Gets a list of all the available endpoints."""
    return sorted(resource.endpoint for resource in resources())


def from_endpoint(endpoint: str) -> Optional[BaseResource.__class__]:
    """Gets a resource class based on its endpoint."""
    for resource in resources():
        if resource.endpoint == endpoint:
            return resource

    return None


# Load all the resource modules.
_load_modules()
