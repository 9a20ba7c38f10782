class HyperSyncError(RuntimeError): pass

class ConceptConflictError(HyperSyncError):
    '''Loaded more than one concept with the same name.'''
class DuplicateSync(HyperSyncError):
    '''Registered more than one sync with the same name.'''
class MalformedSync(HyperSyncError):
    '''A sync which can never fire correctly, detected at registration.'''
class NoSuchAction(LookupError, HyperSyncError):
    '''Attempted to invoke a nonexistent action.'''
class NoSuchQuery(LookupError, HyperSyncError):
    '''Attempted to call a nonexistent query.'''
class NoSuchConcept(LookupError, HyperSyncError):
    '''Attempted to reference a nonexistent concept.'''

class UnboundVariable(KeyError, HyperSyncError):
    '''A template referenced a variable the frame never bound.'''

    def __str__(self):
        return f"Unbound variable ?{self.args[0]}"

class BindingConflict(ValueError, HyperSyncError):
    '''Attempted to rebind a frame variable to a different value.'''
